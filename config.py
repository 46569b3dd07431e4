# -*- coding: utf-8 -*-
import os
from dotenv import load_dotenv

load_dotenv() # Load environment variables from .env file

# --- Core Settings ---
BOT_TOKEN = os.getenv('DISCORD_TOKEN') or os.getenv('BOT_TOKEN')
SOUNDS_DIR = os.getenv('SOUNDS_DIR', "sounds") # Greeting clips, one file per sound
PREFERENCES_FILE = os.getenv('PREFERENCES_FILE', "sound_preferences.json") # channel/user/default sound mapping
LOG_LEVEL = os.getenv('LOG_LEVEL', "INFO").upper()
COMMAND_GROUP_NAME = "greet"

# --- Sound Assets ---
SOUND_EXTENSION = ".mp3" # The only supported audio container
MAX_SOUND_SIZE_MB = 5 # Max upload size in Megabytes
MAX_SOUND_NAME_LENGTH = 50

# --- Audio Processing ---
TARGET_LOUDNESS_DBFS = -14.0 # Target peak loudness for normalization
MAX_PLAYBACK_DURATION_MS = 10 * 1000 # Greetings are cut after 10 seconds
MAX_POSITIVE_GAIN_DB = 6.0

# --- Voice Session Timing ---
CONNECT_TIMEOUT_SECONDS = 5.0 # Bounded wait for the voice connection to become ready
RECONNECT_TIMEOUT_SECONDS = 5.0 # Bounded wait for each reconnect signal after a drop
SETTLE_DELAY_SECONDS = 1.0 # Pause between ready and subscribing the sink
RECONNECT_POLL_INTERVAL_SECONDS = 0.1
