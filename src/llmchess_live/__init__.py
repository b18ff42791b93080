"""
LLM Chess Live package.

Components:
- store: in-memory registry of games and attached connections
- referee: python-chess adapter, the only gate for board mutation
- suggestion/llm_client/prompting/move_validator: automated-opponent moves from an LLM provider
- protocol: real-time event handling, broadcast and automated-move scheduling
- ws_server/server: WebSocket and Flask surfaces
"""
# Package exports are intentionally minimal; import modules directly as needed.
