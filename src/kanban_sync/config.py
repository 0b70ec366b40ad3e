import os
from dotenv import load_dotenv

load_dotenv()

TASK_SERVICE_TIMEOUT = float(os.getenv("TASK_SERVICE_TIMEOUT", 10))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
