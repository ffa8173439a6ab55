#!/usr/bin/env python3
import os
import sys
import logging

import totlib
from totlib import convert
from totlib.cli import Command
import totlib.cli as cli

log = logging.getLogger("totcli")

LOG_ENV = "TOT_LOG"


def read_text(path):
    with open(path, encoding="utf-8") as fh:
        return fh.read()


def write_text(path, text):
    with open(path, "w", encoding="utf-8", newline="\n") as fh:
        fh.write(text)


totcli_cmd = Command('totcli', 'a utility for working with .tot files', version=totlib.__version__)

@totcli_cmd.on_error()
def Error(path, args, exception, traceback):
    """
        This gets called if an exception was thrown during normal operation.
    """
    message = str(exception)
    if path:
        yield "{}: {}".format(':'.join(path), message)
    else:
        yield "totcli: {}".format(message)

    if not isinstance(exception, (totlib.TotError, OSError, ValueError)):
        yield ""
        yield "This is an error totcli doesn't recognize yet. A python traceback follows:"
        yield ""
        yield traceback


check_cmd = totcli_cmd.subcommand('check', short="verify a .tot file")
@check_cmd.run('file')
def Check(file):
    """
        Parse a .tot file, and print `ok` if it is well formed.

        A malformed file prints where the problem is, and exits with a non-zero status.
    """
    value = totlib.parse_value(read_text(file))
    log.debug("%s: %d top level keys", file, len(value))
    return "ok"


to_cmd = totcli_cmd.subcommand('to', short="convert a .tot file to json, yaml or toml")
@to_cmd.run('file file_type out_path')
def To(file, file_type, out_path):
    """
        Convert a .tot file into another format, one of json, yaml, or toml.

        Numbers are written as floats. TOML has no null, so a file holding
        one cannot be converted to TOML.
    """
    text = convert.tot_to(read_text(file), file_type)
    write_text(out_path, text)
    log.info("wrote %s", out_path)


from_cmd = totcli_cmd.subcommand('from', short="convert json, yaml or toml to a .tot file")
@from_cmd.run('--compact? file file_type out_path')
def From(file, file_type, out_path, compact):
    """
        Convert a json, yaml, or toml file into a .tot file.

        The top of the document must be an object. Dates and times are
        written as strings. `--compact` writes the whole document on one line.
    """
    value = convert.from_foreign(read_text(file), file_type)
    if compact:
        text = totlib.encode_compact(value)
    else:
        text = totlib.encode(value)
    write_text(out_path, text)
    log.info("wrote %s", out_path)


def reorder(argv):
    """`totcli <file> check` is the same as `totcli check <file>`."""
    argv = list(argv)
    if len(argv) > 1 and argv[0] not in totcli_cmd.subcommands and argv[1] in totcli_cmd.subcommands:
        if argv[0] != "help" and not argv[0].startswith('--'):
            argv[0], argv[1] = argv[1], argv[0]
    return argv


def setup_logging(environ):
    level = environ.get(LOG_ENV, "DEBUG").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.DEBUG),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv=None, environ=None):
    argv = sys.argv[1:] if argv is None else argv
    environ = os.environ if environ is None else environ
    setup_logging(environ)
    log.debug("Starting! %r", argv)
    return cli.main(totcli_cmd, reorder(argv), environ)


def run():
    sys.exit(main())


if __name__ == '__main__':
    run()
