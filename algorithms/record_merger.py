from typing import Iterable, Tuple


class RecordMerger:
    """Reduce live sets and archived bests to one personal record."""

    @staticmethod
    def is_better(candidate: Tuple[float, int], current: Tuple[float, int]) -> bool:
        if candidate[0] != current[0]:
            return candidate[0] > current[0]
        return candidate[1] > current[1]

    @classmethod
    def best(
        cls,
        live_sets: Iterable[Tuple[float, int]],
        records: Iterable[Tuple[float, int]] = (),
    ) -> Tuple[float, int]:
        """Return ``(max_weight, reps_at_max)`` across both sources.

        Heaviest weight wins; at equal weight the higher rep count wins, so
        the result does not depend on input order. Empty input gives
        ``(0.0, 0)``.
        """
        best: Tuple[float, int] | None = None
        for source in (live_sets, records):
            for weight, reps in source:
                entry = (float(weight), int(reps))
                if best is None or cls.is_better(entry, best):
                    best = entry
        return best if best is not None else (0.0, 0)

    @classmethod
    def best_by_exercise(
        cls,
        live_sets: Iterable[Tuple[int, float, int]],
        records: Iterable[Tuple[int, float, int]] = (),
    ) -> dict[int, Tuple[float, int]]:
        """Apply :meth:`best` per exercise id to ``(exercise_id, weight, reps)`` rows."""
        grouped: dict[int, list[Tuple[float, int]]] = {}
        for source in (live_sets, records):
            for exercise_id, weight, reps in source:
                grouped.setdefault(exercise_id, []).append((weight, reps))
        return {eid: cls.best(pairs) for eid, pairs in grouped.items()}
