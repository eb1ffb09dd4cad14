"""Configuration for the voting UI."""
import os
from dotenv import load_dotenv

load_dotenv()

# API Configuration
ELECTION_API_URL = os.getenv('ELECTION_API_URL', 'http://localhost:3000/api')
API_TIMEOUT = float(os.getenv('API_TIMEOUT', '10'))

# Flask Configuration
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
HOST = os.getenv('UI_HOST', '0.0.0.0')
PORT = int(os.getenv('UI_PORT', '5000'))
