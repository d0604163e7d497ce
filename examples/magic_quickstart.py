#!/usr/bin/env python3
# Example: reactive access mode
# - load() returns the root mapping; plain dict/list edits schedule a debounced save
# - chains run over the same live data
# - close() flushes the pending write

import os
from rich.console import Console
from jsonkit import magic
from jsonkit.console import progress_printer

_console = Console(force_terminal=True, color_system="standard")

def main() -> None:
    path = os.path.join(os.path.dirname(__file__), "data", "magic-data.json")
    with magic(path, debounce=0.1, on_progress=progress_printer(_console)) as manager:
        db = manager.load()

        db["users"] = []
        db["users"].append({"id": 1, "name": "Alice", "age": 25, "role": "admin"})
        db["users"].append({"id": 2, "name": "Bob", "age": 30, "role": "user"})
        db["users"].append({"id": 3, "name": "Charlie", "age": 28, "role": "moderator"})
        db["users"].append({"id": 4, "name": "Diana", "age": 22, "role": "user"})

        db["users"][0]["age"] = 26
        _console.print("Alice:", db["users"][0])

        users = manager.chain
        _console.print("age >= 25:", users("users").where("age").gte(25).get())
        _console.print("name contains 'li':", users("users").where("name").contains("li").get())
        _console.print("admins older than 20:",
                       users("users").where("role").eq("admin").and_("age").gt(20).get())
        _console.print("admins or 30+:",
                       users("users").where("role").eq("admin").or_("age").gte(30).get())
        _console.print("by age desc, page 2:", users("users").sort_desc("age").skip(2).take(2).get())
        _console.print("roles:", users("users").unique("role"))

        n = users("users").where("role").eq("user").update({"verified": True})
        _console.print("verified:", n)
        n = users("users").where("age").lt(23).delete()
        _console.print("removed:", n)

if __name__ == "__main__":
    main()
