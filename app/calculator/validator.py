# ==============================================================================
# app/calculator/validator.py
# ------------------------------------------------------------------------------
# Handles the validation of an uploaded performance workbook's structure and
# data types.
# ==============================================================================

import pandas as pd
from .schema import EXPECTED_SHEETS


def validate_dataframe(sheet_name, df):
    """
    Checks one sheet against its rules and coerces its numeric columns.

    Returns:
        tuple: (cleaned DataFrame or None, list of error messages)
    """
    rules = EXPECTED_SHEETS[sheet_name]
    errors = []

    missing_columns = [col for col in rules['required_columns'] if col not in df.columns]
    if missing_columns:
        errors.append(f"Sheet '{sheet_name}' is missing required columns: {', '.join(missing_columns)}")
        return None, errors

    df = df.copy()
    for col in rules['optional_columns']:
        if col not in df.columns:
            df[col] = float('nan')

    # 1. Required values must be present
    for col in rules['required_columns']:
        for index in df[df[col].isna()].index:
            errors.append(f"Sheet '{sheet_name}', Excel row {index + 2}: '{col}' is required.")

    # 2. Numeric columns must hold numbers
    for col in rules['numeric_columns']:
        # Coerce to numeric, making non-numbers NaN
        numeric_series = pd.to_numeric(df[col].astype(str).str.replace(',', ''), errors='coerce')
        # Find rows where the original value was not empty but the numeric version is NaN
        invalid_rows = df[numeric_series.isna() & df[col].notna()]
        for index in invalid_rows.index:
            value = invalid_rows.loc[index, col]
            errors.append(
                f"Sheet '{sheet_name}', Excel row {index + 2}: "
                f"value '{value}' in column '{col}' must be a number."
            )
        df[col] = numeric_series

    # 3. Range checks on what did parse
    bad_months = df[df['month'].notna() & ~df['month'].between(1, 12)]
    for index in bad_months.index:
        errors.append(f"Sheet '{sheet_name}', Excel row {index + 2}: month {df.loc[index, 'month']:g} is outside 1-12.")
    bad_km = df[df['actual_kilometers'].notna() & (df['actual_kilometers'] <= 0)]
    for index in bad_km.index:
        errors.append(f"Sheet '{sheet_name}', Excel row {index + 2}: 'actual_kilometers' must be greater than 0.")

    if errors:
        return None, errors
    return df, []


def validate_performance_file(filepath):
    """
    Validates the structure and basic data types of an uploaded .xlsx file.

    Args:
        filepath (str): The path to the uploaded .xlsx file.

    Returns:
        tuple: A tuple containing:
            - dict: A dictionary of pandas DataFrames if validation is successful.
            - list: A list of human-readable error messages if validation fails.
    """
    errors = []
    dataframes = {}

    try:
        xls = pd.ExcelFile(filepath)
        sheet_names = xls.sheet_names
    except Exception as e:
        errors.append(f"The Excel file is invalid or cannot be read. Technical error: {e}")
        return None, errors

    # 1. Check for presence of all required sheets
    for sheet_name in EXPECTED_SHEETS:
        if sheet_name not in sheet_names:
            errors.append(f"Required sheet '{sheet_name}' was not found in the Excel file.")

    if errors:
        return None, errors  # Stop validation if sheets are missing

    # 2. Check each sheet for required columns and data types
    for sheet_name in EXPECTED_SHEETS:
        try:
            df = pd.read_excel(xls, sheet_name=sheet_name)
        except Exception as e:
            errors.append(f"An error occurred while reading sheet '{sheet_name}'. Technical error: {e}")
            continue
        cleaned, sheet_errors = validate_dataframe(sheet_name, df)
        errors.extend(sheet_errors)
        if cleaned is not None:
            dataframes[sheet_name] = cleaned

    if errors:
        return None, errors

    return dataframes, []
