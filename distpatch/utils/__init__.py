from .hash_calculator import HashCalculator

__all__ = ['HashCalculator']
