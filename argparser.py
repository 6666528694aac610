# argparser.py
import argparse


def build_parser(prog=None):
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Minimal command interpreter: read a line, find the program, run it, wait.")
    parser.add_argument("script", nargs="?", default=None,
                        help="read commands from this file instead of stdin")
    return parser
