# snapcast/models/__init__.py
from .video import Video, VideoStatus, Transcript
from .auth import User, SessionUser
