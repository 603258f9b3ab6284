"""Greets players when they join and keeps a tally of who came by."""

DEFAULTS = {
    "greeting": "say welcome {name}",
    "announce_count": False,
}


def setup(api):
    config = api.load_config(DEFAULTS)
    seen = set()

    def on_join(line, name):
        seen.add(name)
        commands = [config["greeting"].format(name=name)]
        if config.get("announce_count"):
            commands.append(f"say {len(seen)} player(s) have joined since startup")
        return commands

    def on_stop():
        api.log(f"Server stopped; {len(seen)} distinct player(s) joined")

    def on_crash():
        api.log("Server crashed!", level="warning")

    api.register(r"^Player (\w+) joined", on_join)
    api.register_stop_hook(on_stop)
    api.register_crash_hook(on_crash)
