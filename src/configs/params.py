"""
Model parameters for rod and cone phototransduction simulation
"""

# Default settings for the model
DEFAULT_SETTINGS = {
    "stimulus_file": None,  # Path with input intensity trace (excel or csv)
    "sheet_name": "Sheet1",  # Sheet name of input intensity trace
    "time_column": "Time",  # Column with time in seconds
    "intensity_column": "Intensity",  # Column with intensity in R*/s
    "protocol": "step",  # Generated protocol when no stimulus file is given
    "duration": 5.0,  # Simulated seconds
    "dt": 0.001,  # Integration step (s)
    "substeps": 20,  # Integrator calls per cell per tick
    "tick_interval": 0.020,  # Outer tick (s); must equal substeps * dt
    "record_state": True,  # Whether to record R*, E*, cGMP and Ca per tick
    # Output storage settings
    "storage_format": "excel",  # Storage format: 'excel', 'csv', 'hdf5'
    "output_dir": "results",  # Directory to save results
    "save_trace": True,  # Whether to save the per-tick trace
    "create_summary": True,  # Whether to create a summary table
    "compress_output": False,  # Whether to zip output files
}

# Rod physiology. alpha_max balances synthesis against hydrolysis in darkness:
# alpha_max / (1 + (c_dark / K_c)^m) == beta_dark * g_dark
ROD_PARAMETERS = {
    "tau_r": 0.08,  # s, activated pigment lifetime
    "tau_e": 0.2,  # s, activated PDE lifetime
    "gain": 10.0,  # R* -> E* coupling
    "alpha_max": 78.0,  # μM/s, maximal cGMP synthesis
    "k_c": 0.1,  # μM, guanylate cyclase Ca half-inhibition
    "m": 2.0,  # cyclase Ca cooperativity
    "beta_dark": 1.0,  # 1/s, dark cGMP hydrolysis
    "beta_sub": 0.035,  # 1/(s * E*), light-driven hydrolysis increment
    "g_dark": 3.0,  # μM, dark cGMP
    "n_cg": 3.0,  # CNG channel cooperativity
    "c_dark": 0.5,  # μM, dark Ca
    "c0": 0.01,  # μM, Ca extrusion floor
    "gamma_ca": 50.0,  # 1/s, Ca turnover
    "j_dark": 20.0,  # pA, dark current
    "f_ca": 0.2,  # exchanger fraction of the dark current
}

# Cone physiology
CONE_PARAMETERS = {
    "tau_r": 0.025,
    "tau_e": 0.05,
    "gain": 5.0,
    "alpha_max": 68.0,
    "k_c": 0.1,
    "m": 2.0,
    "beta_dark": 2.0,
    "beta_sub": 0.0135,
    "g_dark": 2.0,
    "n_cg": 3.0,
    "c_dark": 0.4,
    "c0": 0.02,
    "gamma_ca": 100.0,
    "j_dark": 30.0,
    "f_ca": 0.3,
}

# Raw input -> intensity mapping: intensity = 10 ** (offset + span * normalized)
INTENSITY_MAPPING = {
    "log_offset": -1.0,  # 0.1 R*/s at the bottom of the slider
    "log_span": 5.0,  # 10,000 R*/s at the top of the slider
    "adc_max": 4095,  # Potentiometer full scale
    "pwm_max": 255,  # LED duty full scale
    # Cone blend weight = clamp((log10(I) + blend_offset) / blend_span, 0, 1)
    "blend_offset": 1.0,
    "blend_span": 4.0,
}

# Generated stimulus protocols and their defaults
STIMULUS_PROTOCOLS = {
    "dark": {},
    "step": {"intensity": 600.0, "onset": 0.5, "offset": None},
    "flash": {"intensity": 5000.0, "onset": 0.5, "width": 0.02},
    "staircase": {"start": 1.0, "factor": 10.0, "steps": 6, "step_duration": 1.0},
    "pot_sweep": {"start": 0.0, "stop": 1.0},
}

# Storage format configurations
STORAGE_FORMATS = {
    "excel": {
        "extension": ".xlsx",
        "description": "Microsoft Excel file format",
        "single_file": True,
    },
    "csv": {
        "extension": ".csv",
        "description": "Comma-separated values text file",
        "single_file": False,
    },
    "hdf5": {
        "extension": ".h5",
        "description": "Hierarchical Data Format version 5",
        "single_file": True,
    },
}

# Output data categories
OUTPUT_CATEGORIES = {
    "trace": ["trace"],
    "summary": ["cell_summary", "response_curve"],
}
