import sys

import ezocd


if len(sys.argv) != 2:
    sys.exit("usage: python examples/list_symbols.py MAP.ocd")

map, view, warnings = ezocd.read(sys.argv[1], symbols_only=True)
for symbol in map.symbols:
    print(symbol.number, symbol.kind.value, symbol.name)
for message in warnings:
    print("warning:", message)
