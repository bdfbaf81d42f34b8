def read_text(path):
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()
