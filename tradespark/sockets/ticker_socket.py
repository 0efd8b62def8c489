from fastapi import WebSocket, WebSocketDisconnect, status

from tradespark.market.stream import CHANNELS, TICKER, TickerHub


async def ticker_socket(websocket: WebSocket):
    hub: TickerHub = websocket.app.state.ticker_hub
    symbol = websocket.query_params.get("symbol")
    channel = websocket.query_params.get("channel") or TICKER

    if not symbol or channel not in CHANNELS:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    key = await hub.subscribe(symbol, channel, websocket)

    try:
        while True:
            data = await websocket.receive_json()
            if data.get("event") == "leave":
                break
    except WebSocketDisconnect:
        pass
    finally:
        await hub.unsubscribe(key, websocket)
