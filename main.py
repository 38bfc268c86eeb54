"""
Convenience entrypoint for the voice conversation loop.

Allows running `python main.py` in addition to `python -m voice_convo`.
"""

from voice_convo.cli import main


if __name__ == "__main__":
    main()
