from .fingerprint import FingerprintVerifier, FingerprintMatch

__all__ = ['FingerprintVerifier', 'FingerprintMatch']
