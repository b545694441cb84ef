"""
Launch the Streamlit console and the FastAPI sidecar side by side.
"""

import os
import socket
import logging
import subprocess
import threading
import time

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

logging.getLogger('utils').setLevel(logging.INFO)
logging.getLogger('api').setLevel(logging.INFO)

DEFAULT_API_PORT = 8080
DEFAULT_STREAMLIT_PORT = 8501


def is_port_in_use(port):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex(('localhost', port)) == 0


def find_available_port(start_port, max_attempts=10):
    """First free port at or after start_port; start_port when none is free"""
    for port in range(start_port, start_port + max_attempts):
        if not is_port_in_use(port):
            return port
    logger.warning(f"No free port in {start_port}-{start_port + max_attempts - 1}")
    return start_port


def streamlit_command(port):
    return [
        "streamlit", "run", "app.py",
        "--server.port", str(port),
        "--server.address", "0.0.0.0",
        "--server.headless", "true",
    ]


def api_command(port, reload=False):
    cmd = ["uvicorn", "api:app", "--host", "0.0.0.0", "--port", str(port)]
    if reload:
        cmd.append("--reload")
    return cmd


def run_process(name, cmd):
    logger.info(f"🚀 Starting {name}: {' '.join(cmd)}")
    try:
        subprocess.run(cmd, check=True)
    except subprocess.CalledProcessError as e:
        logger.error(f"❌ {name} exited: {e}")
        raise


def main():
    api_port = find_available_port(int(os.environ.get('PORT', DEFAULT_API_PORT)))
    streamlit_port = find_available_port(int(os.environ.get('STREAMLIT_PORT', DEFAULT_STREAMLIT_PORT)))
    reload = os.environ.get('API_RELOAD', '').lower() in ('1', 'true', 'yes')

    api_thread = threading.Thread(
        target=run_process,
        args=("FastAPI", api_command(api_port, reload)),
        daemon=True
    )
    api_thread.start()

    # Give FastAPI a moment to bind before Streamlit takes the foreground
    time.sleep(2)
    run_process("Streamlit", streamlit_command(streamlit_port))


if __name__ == "__main__":
    main()
