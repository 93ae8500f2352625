"""Branch direction predictors: static, bimodal, two-level and hybrids."""

from __future__ import annotations


class GlobalHistoryRegister:
    """Shift register of the most recent conditional branch outcomes."""

    def __init__(self, width: int) -> None:
        self.width = width
        self.value = 0

    def update(self, taken: bool) -> None:
        """Shift in one outcome, dropping the oldest bit."""
        self.value = ((self.value << 1) % (1 << self.width)) + int(bool(taken))

    def binary(self) -> str:
        """The register contents in binary, without leading zeros."""
        return format(self.value, "b")


class SaturatingCounter:
    """An n-bit up/down counter that sticks at its limits."""

    __slots__ = ("value", "maximum")

    def __init__(self, bits: int) -> None:
        self.value = 0
        self.maximum = (1 << bits) - 1

    def update(self, taken: bool) -> None:
        if taken:
            self.value = min(self.value + 1, self.maximum)
        else:
            self.value = max(self.value - 1, 0)

    def predict(self) -> bool:
        """Taken when the counter is in its upper half."""
        return self.value >= (self.maximum + 1) // 2


class FNBT:
    """Static predictor: forward not taken, backward taken."""

    def predict(self, is_forward: bool) -> bool:
        return not is_forward


class _PatternTable:
    """A pattern history table that remembers which entry made the last guess."""

    def __init__(self, size: int, counter_bits: int) -> None:
        self.counter_bits = counter_bits
        self.pht = [SaturatingCounter(counter_bits) for _ in range(size)]
        self._last_index: int | None = None

    def _predict_at(self, index: int) -> bool:
        self._last_index = index
        return self.pht[index].predict()

    def _check_pending(self) -> None:
        if self._last_index is None:
            raise RuntimeError("no prediction has been made to train")

    def _train_last(self, taken: bool) -> None:
        self._check_pending()
        self.pht[self._last_index].update(taken)


class BimodalPredictor:
    """A table of saturating counters indexed by the branch address."""

    def __init__(self, entries: int, counter_bits: int) -> None:
        self.pht = [SaturatingCounter(counter_bits) for _ in range(entries)]

    def predict(self, pc: int) -> bool:
        return self.pht[pc % len(self.pht)].predict()

    def update(self, pc: int, taken: bool) -> None:
        self.pht[pc % len(self.pht)].update(taken)


class SAg(_PatternTable):
    """Per-address history table feeding one shared pattern table."""

    def __init__(self, history_bits: int, bht_entries: int, counter_bits: int) -> None:
        super().__init__(1 << history_bits, counter_bits)
        self.history_bits = history_bits
        self.bht = [0] * bht_entries

    def predict(self, pc: int) -> bool:
        history = self.bht[pc % len(self.bht)]
        return self._predict_at(history % len(self.pht))

    def update(self, pc: int, taken: bool) -> None:
        self._check_pending()
        index = pc % len(self.bht)
        self.bht[index] = ((self.bht[index] << 1) + int(bool(taken))) % (1 << self.history_bits)
        self._train_last(taken)


class GAg(_PatternTable):
    """Pattern table indexed by the global history register."""

    def __init__(self, counter_bits: int, ghr: GlobalHistoryRegister) -> None:
        super().__init__(1 << ghr.width, counter_bits)
        self.ghr = ghr

    def predict(self, pc: int) -> bool:
        return self._predict_at(self.ghr.value % len(self.pht))

    def update(self, pc: int, taken: bool) -> None:
        self._train_last(taken)


class GShare(_PatternTable):
    """Pattern table indexed by global history XOR branch address."""

    def __init__(self, counter_bits: int, ghr: GlobalHistoryRegister) -> None:
        super().__init__(1 << ghr.width, counter_bits)
        self.ghr = ghr

    def predict(self, pc: int) -> bool:
        return self._predict_at((self.ghr.value ^ pc) % len(self.pht))

    def update(self, pc: int, taken: bool) -> None:
        self._train_last(taken)


def _train_choice(selector: BimodalPredictor, key: int, first: bool, second: bool, taken: bool) -> None:
    """Move a two-way selector toward whichever of two disagreeing guesses was right."""
    if first != second:
        selector.update(key, second == taken and first != taken)


class SAgGAgHybrid:
    """Chooses between SAg and GAg with a history-indexed selector."""

    def __init__(self, sag: SAg, gag: GAg, ghr: GlobalHistoryRegister, selector_bits: int) -> None:
        self.sag = sag
        self.gag = gag
        self.ghr = ghr
        self.selector = BimodalPredictor(1 << ghr.width, selector_bits)

    def predict_and_train_selector(self, pc: int, taken: bool) -> bool:
        sag_pred = self.sag.predict(pc)
        gag_pred = self.gag.predict(pc)
        use_gag = self.selector.predict(self.ghr.value)
        _train_choice(self.selector, self.ghr.value, sag_pred, gag_pred, taken)
        return gag_pred if use_gag else sag_pred


class MajorityHybrid:
    """Majority vote of SAg, GAg and gshare."""

    def __init__(self, sag: SAg, gag: GAg, gshare: GShare) -> None:
        self.sag = sag
        self.gag = gag
        self.gshare = gshare

    def predict(self, pc: int) -> bool:
        votes = sum((self.sag.predict(pc), self.gag.predict(pc), self.gshare.predict(pc)))
        return votes >= 2


class TournamentHybrid:
    """Pairwise tournament among SAg, GAg and gshare."""

    def __init__(
        self,
        sag: SAg,
        gag: GAg,
        gshare: GShare,
        ghr: GlobalHistoryRegister,
        selector_bits: int,
    ) -> None:
        self.sag = sag
        self.gag = gag
        self.gshare = gshare
        self.ghr = ghr
        entries = 1 << ghr.width
        self.sag_vs_gag = BimodalPredictor(entries, selector_bits)
        self.gag_vs_gshare = BimodalPredictor(entries, selector_bits)
        self.gshare_vs_sag = BimodalPredictor(entries, selector_bits)

    def predict_and_train_selector(self, pc: int, taken: bool) -> bool:
        sag_pred = self.sag.predict(pc)
        gag_pred = self.gag.predict(pc)
        gshare_pred = self.gshare.predict(pc)

        key = self.ghr.value
        gag_beats_sag = self.sag_vs_gag.predict(key)
        gshare_beats_gag = self.gag_vs_gshare.predict(key)
        sag_beats_gshare = self.gshare_vs_sag.predict(key)

        _train_choice(self.sag_vs_gag, key, sag_pred, gag_pred, taken)
        _train_choice(self.gag_vs_gshare, key, gag_pred, gshare_pred, taken)
        _train_choice(self.gshare_vs_sag, key, gshare_pred, sag_pred, taken)

        if not gag_beats_sag:
            return sag_pred if sag_beats_gshare else gshare_pred
        return gshare_pred if gshare_beats_gag else gag_pred