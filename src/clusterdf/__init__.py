"""clusterdf: filesystem space and inode usage, with Lustre target discovery."""

__version__ = "0.3.0"
