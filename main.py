from rich.pretty import pprint

from arbor import *

program = Program("arbor demo program", version="0.0.0")
program.global_flag("v", "verbose", descr="Print the parsed options")

serve = program.command("serve", alias="s", descr="Start a server on the given port")
serve.flag("H", "host", True, descr="Interface to bind", typecast=str)
serve.argument("port", typecast=int, descr="Port to listen on")


def start(options):
    if options.get("verbose"):
        pprint(options)
    return options.get("host") or "0.0.0.0", options.port


serve.action(start)


remote = program.command("remote", descr="Manage remotes")
remote.command("add", descr="Register a remote").argument("name").argument("url").action(pprint)
remote.command("remove", alias="rm", descr="Forget remotes").argument("names", "+").action(pprint)


if __name__ == '__main__':
    program.parse()
