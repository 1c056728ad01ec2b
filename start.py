"""
Startup script to run the clinic inventory Streamlit app in a container.
"""

import logging
import os
import socket
import subprocess

# Set up comprehensive logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)


def is_port_in_use(port):
    """Check if a port is already in use"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex(('localhost', port)) == 0


def find_available_port(start_port, max_attempts=10):
    """Find an available port starting from start_port"""
    port = start_port
    for _ in range(max_attempts):
        if not is_port_in_use(port):
            return port
        port += 1
    logger.warning(f"Could not find available port after {max_attempts} attempts")
    return start_port  # Return original port as last resort


def streamlit_command(port):
    return [
        "streamlit", "run", "app.py",
        "--server.port", str(port),
        "--server.address", "0.0.0.0",
        "--server.headless", "true",
    ]


def run_streamlit(port=8501):
    """Run Streamlit app"""
    streamlit_port = port
    if is_port_in_use(streamlit_port):
        streamlit_port = find_available_port(streamlit_port)
        logger.info(f"Port {port} is in use, using port {streamlit_port} for Streamlit instead")

    logger.info(f"🚀 Starting Streamlit app on port {streamlit_port}...")
    try:
        subprocess.run(streamlit_command(streamlit_port), check=True)
    except subprocess.CalledProcessError as e:
        logger.error(f"❌ Streamlit failed: {e}")
        raise


def main():
    """Start the app on the Cloud Run port"""
    logger.info("🌟 Starting Clinic Inventory...")

    port = int(os.environ.get('PORT', 8080))
    logger.info(f"PORT environment variable: {port}")

    run_streamlit(port)


if __name__ == "__main__":
    main()
