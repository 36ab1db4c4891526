"""
Real-time WebSocket feeds.
"""

from polymarket_client.ws.client import ClobWSClient, WSStream, parse_messages

__all__ = ["ClobWSClient", "WSStream", "parse_messages"]
