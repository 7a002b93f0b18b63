#!/usr/bin/env python3
"""
examples/price_feed_example.py - Price feed over SSE

Streams simulated quotes to each client. Clients choose the symbols they
want with ``?symbols=ACME,INIT``; every quote goes out as a typed event, so
only subscribed symbols reach the client. A market summary is broadcast as
an untyped event every few ticks.

    python examples/price_feed_example.py
    curl -N "http://127.0.0.1:8000/prices?symbols=ACME"
"""

import asyncio
import logging
import random
import time

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.routing import Route

from sse_session import Session, event_stream_endpoint

logger = logging.getLogger("price_feed")

SYMBOLS = ("ACME", "INIT", "GLOBX")


async def price_feed(session: Session, request: Request) -> None:
    for symbol in request.query_params.get("symbols", "").split(","):
        if symbol:
            session.subscribe(symbol.upper())

    prices = {symbol: 100.0 for symbol in SYMBOLS}
    tick = 0
    while True:
        tick += 1
        # Quotes for one tick go out as a single write
        with session.batch():
            for symbol in SYMBOLS:
                prices[symbol] = round(prices[symbol] * random.uniform(0.99, 1.01), 2)
                session.send(
                    {"symbol": symbol, "price": prices[symbol], "timestamp": time.time()},
                    event=symbol,
                    id=f"{tick}-{symbol}",
                )

        if tick % 5 == 0:
            session.send({"summary": prices, "tick": tick})
        await asyncio.sleep(0.5)


def on_heartbeat() -> None:
    logger.debug("heartbeat sent")


app = Starlette(
    routes=[
        Route(
            "/prices",
            event_stream_endpoint(
                price_feed,
                heartbeatIntervalMs=10000,
                heartbeatCallback=on_heartbeat,
                retry=3000,
                maxRequestsPerSecond=20,
            ),
        )
    ]
)


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    uvicorn.run(app, host="127.0.0.1", port=8000)
