"""Gravitational lensing server - entry point."""

from config import load_config
from internal.crash import install_crash_handler

config = load_config()
install_crash_handler(config.logging.crash_file)

from web.app import create_app

app = create_app(config)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("lensing:app", host=config.server.host, port=config.server.port)
