#!/usr/bin/env python3
"""
Run the Restaurant Assistant API.

Server configuration is controlled via environment variables:
- SERVER_HOST: Host to bind to (default: 0.0.0.0)
- SERVER_PORT: Port to listen on (default: 3001)
- OPENAI_API_KEY / ANTHROPIC_API_KEY: Completion provider credentials
"""
import uvicorn

from restaurant_assistant.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "restaurant_assistant.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
    )
