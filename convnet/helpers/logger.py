# convnet/helpers/logger.py
import csv, json, datetime, pathlib
import matplotlib.pyplot as plt


class RunLogger:
    """Per-run training history: history.csv, history.json and loss plots."""

    def __init__(self, root="runs", tag="run"):
        ts = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
        self.root = pathlib.Path(root)
        self.dir = self.root / f"{tag}_{ts}"
        self.dir.mkdir(parents=True, exist_ok=True)
        self.csv_path = self.dir / "history.csv"
        self.json_path = self.dir / "history.json"
        self.metrics = []  # list of dicts per epoch
        self._csv_header_written = False

    # ---------- logging ----------
    def log_epoch(self, epoch, **kwargs):
        row = {"epoch": int(epoch), **{k: float(v) for k, v in kwargs.items()}}
        self.metrics.append(row)
        with open(self.csv_path, "a", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=list(row.keys()))
            if not self._csv_header_written:
                writer.writeheader()
                self._csv_header_written = True
            writer.writerow(row)

    def save_json(self, layers=None):
        """Write the epoch history; ``layers`` adds the short description of each layer."""
        payload = {"epochs": self.metrics}
        if layers is not None:
            payload["layers"] = [L.to_short_string() for L in layers]
        with open(self.json_path, "w") as f:
            json.dump(payload, f, indent=2)
        return str(self.json_path)

    # ---------- plotting ----------
    def plot_loss(self, history, tag="run", subdir="plots"):
        """
        Saves the training loss curve as loss_curve_<tag>.png.
        history: {'loss': [...]} as returned by Network.fit
        """
        loss = history.get("loss", [])
        outdir = self.dir / subdir
        outdir.mkdir(parents=True, exist_ok=True)
        path = outdir / f"loss_curve_{tag}.png"

        plt.figure()
        if len(loss) > 0:
            plt.plot(range(1, len(loss) + 1), loss, label="train loss")
            plt.legend()
        plt.xlabel("Epoch")
        plt.ylabel("Squared Error")
        plt.title(f"Loss vs Epochs ({tag})")
        plt.tight_layout()
        plt.savefig(path, dpi=160)
        plt.close()
        return str(path)
