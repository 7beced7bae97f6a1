import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

# "memory" delivers frames in-process, "redis" fans them out over pub/sub
TRANSPORT_BACKEND = os.getenv("TRANSPORT_BACKEND", "memory")

# JSON config file: rooms.maxClients, stunservers, turnservers, turnorigins, codecPriority, maxAverageBitRate
SIGNALING_CONFIG = os.getenv("SIGNALING_CONFIG", None)

MAX_CLIENTS = os.getenv("MAX_CLIENTS", None)
CODEC_PRIORITY = os.getenv("CODEC_PRIORITY", None)  # e.g. "H264,VP8"
MAX_AVERAGE_BITRATE = os.getenv("MAX_AVERAGE_BITRATE", None)
STUN_SERVERS = os.getenv("STUN_SERVERS", None)  # comma separated stun: URIs
TURN_ORIGINS = os.getenv("TURN_ORIGINS", None)  # comma separated origin allowlist

DEFAULT_TURN_EXPIRY = 86400
