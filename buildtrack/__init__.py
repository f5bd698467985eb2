"""BuildTrack: construction project, contract and receipt tracking API."""

__version__ = '1.0.0'
