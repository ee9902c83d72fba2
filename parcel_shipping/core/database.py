"""
Declarative base for the shipping persistence models.

Engine and session wiring belong to the host application; the engine
only needs the models and an AsyncSession handed in by the caller.
"""
from sqlalchemy.orm import declarative_base

Base = declarative_base()
