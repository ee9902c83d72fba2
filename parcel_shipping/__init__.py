"""
Parcel Shipping

Rate evaluation and shipment booking against the Sendcloud parcel API.
"""

__version__ = "1.0.0"
