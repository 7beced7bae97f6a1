REDIS_CONN_CHANNEL = "signal:conn:{connection_id}" # connection id - pub/sub channel for outbound frames
REDIS_CONN_PATTERN = "signal:conn:*" # pattern subscribed once per process, routed to local queues by channel suffix

# **Frame published on `signal:conn:{id}`**
# - `event` = outbound event name (message, memberjoined, roommembers, ack, ...)
# - `data` = JSON payload of the event
# - `ack` = acknowledgement id, only present on `ack` frames
