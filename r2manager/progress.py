from contextlib import contextmanager

import click


@contextmanager
def part_progress(label: str):
    """
        Show a click progress bar driven by the multipart progress sink.
        Single-request uploads never call the sink; the bar is filled on success.

        Yields:
            callable: sink accepting (part_number, total_parts, percent)
    """
    with click.progressbar(length=100, label=label, show_percent=True) as bar:
        shown = [0]

        def sink(part_number: int, total_parts: int, percent: float) -> None:
            target = int(percent)
            if target > shown[0]:
                bar.update(target - shown[0])
                shown[0] = target

        yield sink

        if shown[0] < 100:
            bar.update(100 - shown[0])
            shown[0] = 100
