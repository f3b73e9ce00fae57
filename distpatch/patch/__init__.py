from .composer import ChangeComposer

__all__ = ['ChangeComposer']
