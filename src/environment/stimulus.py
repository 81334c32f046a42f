"""
Light stimulus management for simulation
"""

import logging
import os

import numpy as np
import pandas as pd

from src.configs.params import DEFAULT_SETTINGS, STIMULUS_PROTOCOLS
from src.environment.adapter import IOAdapter

logger = logging.getLogger(__name__)

INTENSITY_LABEL = "Intensity (R*/s)"
TIME_LABEL = "Time (s)"
# Decimals used to align sample times with the tick grid
TIME_DECIMALS = 9


def tick_grid(duration, tick_interval):
    """
    Times of the outer ticks covering a duration

    Args:
        duration (float): Simulated seconds
        tick_interval (float): Outer tick (s)

    Returns:
        numpy.ndarray: Tick start times, rounded to TIME_DECIMALS
    """
    n_ticks = int(round(duration / tick_interval))
    return np.round(np.arange(n_ticks) * tick_interval, TIME_DECIMALS)


class StimulusInitializer:
    """
    Load an intensity trace from file and hold it onto the tick grid
    """

    def __init__(
        self,
        file_path,
        sheet_name=DEFAULT_SETTINGS["sheet_name"],
        tick_interval=DEFAULT_SETTINGS["tick_interval"],
        time_column=DEFAULT_SETTINGS["time_column"],
        intensity_column=DEFAULT_SETTINGS["intensity_column"],
        duration=None,
    ):
        """
        Initialize the StimulusInitializer

        Args:
            file_path (str): Path to stimulus file (.xlsx or .csv)
            sheet_name (str): Sheet name in an excel stimulus file
            tick_interval (float): Outer tick (s)
            time_column (str): Column with sample times (s)
            intensity_column (str): Column with intensity (R*/s)
            duration (float): Simulated seconds; defaults to the last sample plus one tick
        """
        self.file_path = file_path
        self.sheet_name = sheet_name
        self.tick_interval = tick_interval
        self.time_column = time_column
        self.intensity_column = intensity_column
        self.duration = duration

    def read(self):
        """Read the raw stimulus table."""
        if not os.path.isfile(self.file_path):
            logger.error(f"Stimulus file not found: {self.file_path}")
            raise FileNotFoundError(f"Stimulus file not found: {self.file_path}")

        if self.file_path.lower().endswith(".csv"):
            return pd.read_csv(self.file_path)
        return pd.read_excel(self.file_path, sheet_name=self.sheet_name)

    def initialize(self):
        """
        Load the stimulus and resample it onto the tick grid

        Returns:
            pandas.Series: Intensity per tick, indexed by tick start time

        Raises:
            ValueError: If required columns are missing or no valid rows remain
        """
        df = self.read()

        missing = [c for c in (self.time_column, self.intensity_column) if c not in df.columns]
        if missing:
            logger.error(f"Stimulus file {self.file_path} lacks columns: {missing}")
            raise ValueError(f"Stimulus file is missing columns: {', '.join(missing)}")

        df = df[[self.time_column, self.intensity_column]].apply(pd.to_numeric, errors="coerce")
        df = df.replace([np.inf, -np.inf], np.nan)
        original_count = len(df)
        df = df.dropna()
        if len(df) < original_count:
            logger.warning(
                f"Dropped {original_count - len(df)} stimulus rows with missing or non-numeric values."
            )
        if df.empty:
            logger.error(f"No valid stimulus rows in {self.file_path}")
            raise ValueError(f"No valid stimulus rows in {self.file_path}")

        negative = (df[self.intensity_column] < 0).sum()
        if negative:
            logger.warning(f"Clamped {negative} negative intensities to 0.")
            df = df.assign(**{self.intensity_column: df[self.intensity_column].clip(lower=0.0)})

        samples = (
            df.assign(**{self.time_column: df[self.time_column].round(TIME_DECIMALS)})
            .sort_values(self.time_column, kind="mergesort")
            .drop_duplicates(subset=self.time_column, keep="last")
            .set_index(self.time_column)[self.intensity_column]
        )

        duration = self.duration
        if duration is None:
            duration = samples.index.max() + self.tick_interval

        grid = tick_grid(duration, self.tick_interval)
        # Zero-order hold; darkness before the first sample
        held = samples.reindex(grid, method="ffill").fillna(0.0)
        held.index.name = TIME_LABEL
        held.name = INTENSITY_LABEL

        logger.info(
            f"Loaded stimulus {self.file_path}: {len(samples)} samples -> {len(held)} ticks"
        )
        return held


def generate_protocol(name, duration, tick_interval=DEFAULT_SETTINGS["tick_interval"], **kwargs):
    """
    Build a generated stimulus on the tick grid

    Args:
        name (str): One of STIMULUS_PROTOCOLS ('dark', 'step', 'flash', 'staircase', 'pot_sweep')
        duration (float): Simulated seconds
        tick_interval (float): Outer tick (s)
        **kwargs: Overrides for the protocol defaults

    Returns:
        pandas.Series: Intensity per tick, indexed by tick start time

    Raises:
        ValueError: If the protocol is unknown
    """
    if name not in STIMULUS_PROTOCOLS:
        logger.error(f"Unknown stimulus protocol: {name}")
        raise ValueError(
            f"Unknown protocol '{name}', expected one of {', '.join(STIMULUS_PROTOCOLS)}"
        )

    options = dict(STIMULUS_PROTOCOLS[name])
    options.update(kwargs)

    grid = tick_grid(duration, tick_interval)
    ticks = np.arange(len(grid))

    def to_tick(seconds):
        return int(round(seconds / tick_interval))

    if name == "dark":
        values = np.zeros(len(grid))
    elif name == "step":
        end = len(grid) if options["offset"] is None else to_tick(options["offset"])
        on = (ticks >= to_tick(options["onset"])) & (ticks < end)
        values = np.where(on, options["intensity"], 0.0)
    elif name == "flash":
        start = to_tick(options["onset"])
        width = max(1, to_tick(options["width"]))
        on = (ticks >= start) & (ticks < start + width)
        values = np.where(on, options["intensity"], 0.0)
    elif name == "staircase":
        level = np.minimum(ticks // max(1, to_tick(options["step_duration"])), options["steps"] - 1)
        values = options["start"] * np.power(float(options["factor"]), level)
    else:
        adapter = options.get("adapter") or IOAdapter()
        positions = np.linspace(options["start"], options["stop"], num=len(grid))
        values = np.array([adapter.intensity_from_normalized(p) for p in positions])

    logger.debug(f"Generated '{name}' protocol with {len(grid)} ticks")
    return pd.Series(
        values.astype(float), index=pd.Index(grid, name=TIME_LABEL), name=INTENSITY_LABEL
    )
