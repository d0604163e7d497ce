#!/usr/bin/env python3
# Example usage of jsonkit: classic API (insert/find/update/delete) and chains

import os
from rich.console import Console
from jsonkit import Database
from jsonkit.console import progress_printer

_console = Console(force_terminal=True, color_system="standard")

def main() -> None:
    path = os.path.join(os.path.dirname(__file__), "data", "mydata.json")
    # Whole file is loaded on open; every mutation rewrites it
    db = Database(path, pretty=True, on_progress=progress_printer(_console))

    db.clear("users")
    db.insert("users", [
        {"id": 1, "name": "Alice", "email": "alice@example.com", "age": 25},
        {"id": 2, "name": "Bob", "email": "bob@example.com", "age": 30},
        {"id": 3, "name": "Charlie", "email": "charlie@example.com", "age": 28},
    ])

    _console.print("All users:", db.find("users"))
    _console.print("Bob:", db.find_one("users", {"name": "Bob"}))
    _console.print("Older than 26:", db.find("users", {"age": {"$gt": 26}}, order_by=[("age", "desc")]))
    _console.print("Name starts with A or C:", db.find("users", {"$or": [
        {"name": {"$startsWith": "A"}},
        {"name": {"$regex": "^C"}},
    ]}))

    # Same query as a chain
    older = db.chain("users").where("age").gt(26).sort_desc("age").get()
    _console.print("Chain, older than 26:", older)
    _console.print("Average age:", db.chain("users").avg("age"))

    n = db.update("users", {"name": "Bob"}, {"age": 31})
    _console.print("Updated records:", n)

    n = db.delete("users", {"name": "Charlie"})
    _console.print("Deleted records:", n)
    _console.print("Remaining users:", db.count("users"))

    db.close()

if __name__ == "__main__":
    main()
