"""ZeroMQ session backend."""
