from .main import cli
from .prompts import ClickConfirmer

__all__ = ['cli', 'ClickConfirmer']
