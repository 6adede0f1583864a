"""Transport bookkeeping for QUIC: flow control, pacing, rate estimation, congestion jumpstart, sent-packet tracking and connection IDs."""

__version__ = "0.1.0"
__all__ = ["cc", "errors", "local_cid", "maxsender", "pacer", "rate", "remote_cid", "sentmap"]