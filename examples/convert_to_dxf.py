import sys

import ezocd


if len(sys.argv) != 3:
    sys.exit("usage: python examples/convert_to_dxf.py MAP.ocd OUT.dxf")

result = ezocd.to_dxf(sys.argv[1], sys.argv[2], dxf_version="R2010")
print(result)
