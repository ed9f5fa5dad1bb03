"""
__main__.py

Run bingdaily as a python module (python -m bingdaily) instead of through the "bingdaily"
command line entrypoint.
"""


from bingdaily.cli import main


if __name__ == "__main__":
    main()
