import sys
import types
import traceback


### Argspec / Parsing

class BadArg(Exception):
    def action(self, path):
        return Action("error", path, {'usage': True}, errors=self.args)

class Argspec:
    def __init__(self, switches, positional):
        self.switches = switches
        self.positional = positional

def parse_argspec(argspec):
    """
        argspec is a short description of a command's expected args:
        "x y z"         three args (x,y,z) in that order

        switches come first:
            `--foo?` is a switch, `cmd --foo` foo is True, `cmd` foo is False
    """
    positional = []
    switches = []
    argnames = set()

    def argname(name):
        if name in argnames:
            raise BadArg('duplicate arg name {}'.format(name))
        argnames.add(name)
        return name

    args = argspec.split()
    nargs = len(args)
    while args and args[0].startswith('--'):
        arg = args.pop(0)
        if not arg.endswith('?'):
            raise BadArg('{} must be a switch, like --{}?'.format(arg, arg[2:]))
        switches.append(argname(arg[2:-1]))

    for arg in args:
        if arg.startswith('--'):
            raise BadArg('switches must come before {}'.format(arg))
        positional.append(argname(arg))

    return nargs, Argspec(switches=switches, positional=positional)


def parse_args(argspec, argv, environ):
    options = []
    flags = {}
    args = {}

    for arg in argv:
        if arg.startswith('--'):
            if '=' in arg:
                raise BadArg("{} does not take a value".format(arg.split('=', 1)[0]))
            flags[arg[2:]] = flags.get(arg[2:], 0) + 1
        else:
            options.append(arg)

    for name in argspec.switches:
        count = flags.pop(name, 0)
        if count > 1:
            raise BadArg("duplicate switch flag for: {}".format(name))
        args[name] = bool(count)

    if flags:
        raise BadArg("unknown option flags: {}".format(", ".join("--{}".format(f) for f in flags)))

    for name in argspec.positional:
        if not options:
            raise BadArg("missing option: {}".format(name))
        args[name] = options.pop(0)

    if options:
        raise BadArg("unrecognised option: {!r}".format(" ".join(options)))
    return args

class CommandDescription:
    def __init__(self, prefix, name, subcommands, short, long, argspec, version):
        self.prefix = prefix
        self.name = name
        self.subcommands = subcommands
        self.short, self.long = short, long
        self.argspec = argspec
        self._version = version

    def version(self):
        return self._version or "<None>"

    def parse_args(self, path, argv, environ, route):
        if self.subcommands and path:
            if path[0] in self.subcommands:
                return self.subcommands[path[0]].parse_args(path[1:], argv, environ, route + [path[0]])
            if route:
                error = "unknown subcommand {} for {}".format(path[0], ":".join(route))
                return Action("error", route, {'usage': True}, errors=(error,))
            return Action("error", route, {'usage': True}, errors=("an unknown command: {}".format(path[0]),))
        elif not self.argspec:
            if argv and argv[0]:
                if "--help" in argv:
                    return Action("help", route, {'usage': True})
                return Action("error", route, {'usage': True}, errors=("unknown option: {}".format(argv[0]),))
            return Action("help", route, {'usage': False})
        else:
            if '--help' in argv:
                return Action("help", route, {'usage': True})
            try:
                return Action("call", route, parse_args(self.argspec, argv, environ))
            except BadArg as e:
                return e.action(route)

    def help(self, path, *, usage=False):
        if path and path[0] in self.subcommands:
            return self.subcommands[path[0]].help(path[1:], usage=usage)
        if usage:
            return self.usage()
        return self.manual()

    def full_name(self):
        names = list(self.prefix) + [self.name]
        return "{}{}{}".format(names[0], " " if names[1:] else "", ":".join(names[1:]))

    def manual(self):
        output = []
        output.append("{}{}{}".format(self.full_name(), " - " if self.short else "", self.short or ""))
        output.append("")
        output.append(self.usage())
        output.append("")

        if self.long:
            output.append('description:')
            output.append(self.long)
            output.append("")

        if self.subcommands:
            output.append("commands:")
            for name, cmd in self.subcommands.items():
                output.append("  {:10}  {}".format(name, cmd.short or ""))
            output.append("")
        return "\n".join(output)

    def usage(self):
        output = []
        if self.argspec:
            args = []
            args.extend("[--{0}]".format(o) for o in self.argspec.switches)
            args.extend("<{}>".format(o) for o in self.argspec.positional)
            output.append("usage: {0} {1}".format(self.full_name(), " ".join(args)))
        if self.subcommands:
            output.append("usage: {0} [help] <{1}> [--help]".format(self.full_name(), "|".join(self.subcommands)))
        return "\n".join(output)


class Action:
    def __init__(self, mode, command, argv, errors=()):
        self.mode = mode
        self.path = command
        self.argv = argv
        self.errors = errors

class Error(Exception):
    def __init__(self, exit_code, value):
        self.exit_code = exit_code
        self.value = value
        Exception.__init__(self, value)

class Command:
    def __init__(self, name, short=None, long=None, version=None):
        self.name = name
        self.prefix = []
        self.subcommands = {}
        self.run_fn = None
        self.short = short
        self.long = long
        self.version = version
        self.argspec = None
        self.nargs = 0
        self.err_fn = None

    # -- builder methods

    def on_error(self):
        def _decorator(fn):
            self.err_fn = fn
            return fn
        return _decorator

    def subcommand(self, name, short=None, long=None):
        if name in self.subcommands:
            raise Exception('duplicate subcommand {}'.format(name))
        cmd = Command(name, short, long)
        cmd.prefix.extend(self.prefix)
        cmd.prefix.append(self.name)
        self.subcommands[name] = cmd
        return cmd

    def run(self, argspec):
        """A decorator for setting the function to be run, `argspec` names its arguments"""
        if self.run_fn:
            raise Exception('{} already has a function'.format(self.name))

        self.nargs, self.argspec = parse_argspec(argspec)

        def decorator(fn):
            self.run_fn = fn

            args = list(fn.__code__.co_varnames[:fn.__code__.co_argcount])
            args = [a for a in args if not a.startswith('_')]

            if self.nargs != len(args):
                raise Exception('bad option definition for {}'.format(self.name))
            return fn
        return decorator

    # -- end of builder methods

    def call(self, path, argv):
        if path and path[0] in self.subcommands:
            return self.subcommands[path[0]].call(path[1:], argv)
        elif self.run_fn:
            if len(argv) == self.nargs:
                return self.run_fn(**argv)
            raise Error(-1, "bad options")
        elif len(argv) == 0:
            return self.render().manual()
        raise Error(-1, self.render().usage())

    def render(self):
        long = self.long
        if self.run_fn and not long:
            long = self.run_fn.__doc__
        if long:
            out = []
            for para in long.strip().split('\n\n'):
                out.append(" ".join(x for x in para.split() if x))
            long = "\n\n".join(out)
        else:
            long = None

        return CommandDescription(
            name=self.name,
            prefix=self.prefix,
            subcommands={k: v.render() for k, v in self.subcommands.items()},
            short=self.short,
            long=long,
            argspec=self.argspec,
            version=self.version,
        )


def output(result):
    if not isinstance(result, types.GeneratorType):
        result = (result,)
    for line in result:
        if isinstance(line, (bytes, bytearray)):
            sys.stdout.buffer.write(line)
        elif line is not None:
            print(line)
    sys.stdout.flush()


def main(root, argv, environ):
    obj = root.render()
    argv = list(argv)

    if argv and argv[0] == "help":
        argv.pop(0)
        path = []
        if argv and not argv[0].startswith('--'):
            path = argv.pop(0).strip().split(':')
        action = obj.parse_args(path, argv, environ, [])
        action = Action("help", action.path, {'manual': True})
    elif argv and argv[0] == '--version':
        action = Action("version", [], {})
    elif argv and argv[0] == '--help':
        action = Action("help", [], {'usage': True})
    else:
        path = []
        if argv and not argv[0].startswith('--'):
            path = argv.pop(0).strip().split(':')
        action = obj.parse_args(path, argv, environ, [])

    try:
        code = 0
        result = None
        if action.mode == "version":
            result = obj.version()
        elif action.mode == "call":
            result = root.call(action.path, action.argv)
        elif action.mode == "help":
            result = obj.help(action.path, usage=action.argv.get('usage'))
        elif action.mode == "error":
            print("error: {}".format(", ".join(action.errors)))
            result = obj.help(action.path, usage=action.argv.get('usage'))
            code = -1

        if result is not None:
            output(result)
        return code
    except Error as e:
        print()
        print(e.value)
        return e.exit_code
    except Exception as e:
        result = "".join(traceback.format_exception(*sys.exc_info()))
        if root.err_fn:
            result = root.err_fn(action.path, action.argv, e, result)
        output(result)
        return -1
