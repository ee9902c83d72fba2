# Services layer for rate evaluation and shipment booking
