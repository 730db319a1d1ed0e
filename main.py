"""
Encode and decode Base64 text.
"""
import base64
import sys

from rich.pretty import pprint

from sigil import *

__prog__ = "b64"
__version__ = "0.1.0"

verbose: bool = Option(aliases=["v"], description="print the parsed command tree first")


@command(aliases=["enc"], description="Encode a string to Base64")
def encode(text: str = Argument(description="text to encode")):
    print(base64.b64encode(text.encode("utf-8")).decode("ascii"))


@command(aliases=["dec"], description="Decode a Base64 string")
def decode(text: str = Argument(description="Base64 text to decode")) -> int:
    try:
        print(base64.b64decode(text, validate=True).decode("utf-8"))
    except ValueError:
        print(f"not valid Base64: {text!r}", file=sys.stderr)
        return 2
    return 0


@startup
def setup(app):
    @app.before_command
    def dump(result):
        if verbose:
            pprint(app.root)


if __name__ == '__main__':
    raise SystemExit(run())
