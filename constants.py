import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))
RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# "explicit": rooms must be created via /create-room before joining
# "implicit": joining an unknown room creates it
ROOM_CREATION = os.getenv("ROOM_CREATION", "explicit")

ROOM_ID_LENGTH = int(os.getenv("ROOM_ID_LENGTH", 8))
ROOM_ID_CHARSET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

# 0 disables the idle timeout; dead peers are then only noticed on a failed send
IDLE_TIMEOUT_SECONDS = float(os.getenv("IDLE_TIMEOUT_SECONDS", 0))

ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()]

CLOSE_COMMAND = "/close"

# Client-facing texts
ERR_MISSING_PARAMS = "Room ID and Username are required"
ERR_ROOM_ID_REQUIRED = "Room ID is required"
ERR_ROOM_NOT_FOUND = "Room does not exist"
ERR_DUPLICATE_USERNAME = "Username already exists in the room"
ERR_INVALID_MESSAGE = "Invalid message format"
ROOM_CLOSED_TEXT = "Room has been closed by the admin."
