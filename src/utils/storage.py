"""
Data storage utilities for saving simulation results
"""

import json
import logging
import os
import zipfile
from datetime import datetime

import pandas as pd

from src.configs.params import OUTPUT_CATEGORIES, STORAGE_FORMATS

logger = logging.getLogger(__name__)


class DataStorage:
    """
    Class for handling data storage operations with various formats
    """

    def __init__(
        self,
        output_dir="results",
        storage_format="excel",
        save_trace=True,
        create_summary=True,
        compress_output=False,
    ):
        """
        Initialize the DataStorage

        Args:
            output_dir (str): Directory to save results
            storage_format (str): Storage format ('excel', 'csv', or 'hdf5')
            save_trace (bool): Whether to save the per-tick trace
            create_summary (bool): Whether to save summary tables
            compress_output (bool): Whether to compress output files

        Raises:
            ValueError: If the storage format is unknown
        """
        storage_format = storage_format.lower()
        if storage_format not in STORAGE_FORMATS:
            logger.error(f"Unknown storage format: {storage_format}")
            raise ValueError(
                f"Unknown storage format '{storage_format}', expected one of {', '.join(STORAGE_FORMATS)}"
            )

        self.output_dir = output_dir
        self.storage_format = storage_format
        self.save_trace = save_trace
        self.create_summary = create_summary
        self.compress_output = compress_output

        format_info = STORAGE_FORMATS[storage_format]
        self.extension = format_info["extension"]
        self.single_file = format_info["single_file"]

        os.makedirs(output_dir, exist_ok=True)

        self.metadata = {
            "simulation_timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "storage_format": storage_format,
            "data_categories": {
                "trace": save_trace,
                "summary": create_summary,
            },
        }

    def enabled_categories(self):
        """Categories selected for saving, in OUTPUT_CATEGORIES order."""
        enabled = {"trace": self.save_trace, "summary": self.create_summary}
        return [category for category in OUTPUT_CATEGORIES if enabled.get(category)]

    def generate_file_path(self, base_name=None, category=None):
        """
        Generate file path based on storage format and settings

        Args:
            base_name (str): Base name for the file
            category (str): Data category ('trace' or 'summary')

        Returns:
            str: Generated file path
        """
        if base_name is None:
            base_name = f"simulation_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

        if category:
            file_name = f"{base_name}_{category}{self.extension}"
        else:
            file_name = f"{base_name}{self.extension}"

        return os.path.join(self.output_dir, file_name)

    def save_data(self, data_dict, base_name=None, simulation_params=None):
        """
        Save all simulation data

        Args:
            data_dict (dict): Dictionary containing all data frames
            base_name (str): Base name for the output files
            simulation_params (dict): Simulation parameters to include in metadata

        Returns:
            dict: Paths to saved files
        """
        if simulation_params:
            self.metadata["simulation_parameters"] = simulation_params

        if base_name is None:
            base_name = f"simulation_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

        if self.storage_format == "excel":
            result_files = self._save_to_excel(data_dict, base_name)
        elif self.storage_format == "csv":
            result_files = self._save_to_csv(data_dict, base_name)
        else:
            result_files = self._save_to_hdf5(data_dict, base_name)

        metadata_path = os.path.join(self.output_dir, f"{base_name}_metadata.json")
        with open(metadata_path, "w") as f:
            json.dump(self.metadata, f, indent=2, default=str)
        result_files["metadata"] = metadata_path

        if self.compress_output:
            zip_path = os.path.join(self.output_dir, f"{base_name}_all_files.zip")
            with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zipf:
                for file_path in _iter_paths(result_files):
                    if os.path.exists(file_path):
                        zipf.write(file_path, os.path.relpath(file_path, self.output_dir))
            result_files["compressed"] = zip_path

        logger.info(f"Saved {self.storage_format} results to {self.output_dir} as '{base_name}'")
        return result_files

    def _tables(self, data_dict, category):
        """Non-empty DataFrames of a category."""
        for sheet_name in OUTPUT_CATEGORIES[category]:
            df = data_dict.get(sheet_name)
            if df is not None and not df.empty:
                yield sheet_name, df

    def _save_to_excel(self, data_dict, base_name):
        """
        Save data to Excel format, one workbook per category

        Args:
            data_dict (dict): Dictionary containing all data frames
            base_name (str): Base name for the output files

        Returns:
            dict: Paths to saved Excel files
        """
        result_files = {}
        for category in self.enabled_categories():
            tables = list(self._tables(data_dict, category))
            if not tables:
                continue
            path = self.generate_file_path(base_name, category)
            with pd.ExcelWriter(path) as writer:
                for sheet_name, df in tables:
                    df.to_excel(writer, sheet_name=sheet_name, index=False)
            result_files[category] = path
        return result_files

    def _save_to_csv(self, data_dict, base_name):
        """
        Save data to CSV format (one file per table)

        Args:
            data_dict (dict): Dictionary containing all data frames
            base_name (str): Base name for the output files

        Returns:
            dict: Paths to saved CSV files, grouped by category
        """
        result_files = {}
        sim_dir = os.path.join(self.output_dir, base_name)

        for category in self.enabled_categories():
            category_files = {}
            category_dir = os.path.join(sim_dir, category)
            for sheet_name, df in self._tables(data_dict, category):
                os.makedirs(category_dir, exist_ok=True)
                file_path = os.path.join(category_dir, f"{sheet_name}{self.extension}")
                df.to_csv(file_path, index=False)
                category_files[sheet_name] = file_path
            if category_files:
                result_files[category] = category_files

        return result_files

    def _save_to_hdf5(self, data_dict, base_name):
        """
        Save data to a single HDF5 file

        Args:
            data_dict (dict): Dictionary containing all data frames
            base_name (str): Base name for the output files

        Returns:
            dict: Path to the saved HDF5 file
        """
        hdf5_path = self.generate_file_path(base_name)

        # One '<category>/<table>' key per non-empty table
        with pd.HDFStore(hdf5_path, mode="w") as store:
            for category in self.enabled_categories():
                for sheet_name, df in self._tables(data_dict, category):
                    store.put(f"{category}/{sheet_name}", df, format="table")

        return {"hdf5": hdf5_path}


def _iter_paths(result_files):
    for value in result_files.values():
        if isinstance(value, dict):
            yield from _iter_paths(value)
        else:
            yield value


def save_simulation_results(
    result_data,
    output_dir="results",
    base_name=None,
    storage_format="excel",
    save_trace=True,
    create_summary=True,
    compress_output=False,
    simulation_params=None,
):
    """
    Save simulation results to specified format.

    Args:
        result_data (dict): Dictionary containing DataFrames of simulation results.
        output_dir (str): Directory to save the output files.
        base_name (str, optional): Base name of the output files.
        storage_format (str): Format to save results ('excel', 'csv', 'hdf5').
        save_trace (bool): Whether to save the per-tick trace.
        create_summary (bool): Whether to save summary tables.
        compress_output (bool): Whether to compress output files.
        simulation_params (dict, optional): Parameters recorded in the metadata file.

    Returns:
        dict: Paths to saved files
    """
    storage = DataStorage(
        output_dir=output_dir,
        storage_format=storage_format,
        save_trace=save_trace,
        create_summary=create_summary,
        compress_output=compress_output,
    )
    return storage.save_data(result_data, base_name=base_name, simulation_params=simulation_params)
