# ==============================================================================
# app/calculator/schema.py
# ------------------------------------------------------------------------------
# Defines the expected structure of an uploaded performance workbook.
# This schema is the single source of truth for the validator.
# ==============================================================================

PERFORMANCE_SHEET = 'Performance'

EXPECTED_SHEETS = {
    PERFORMANCE_SHEET: {
        'required_columns': ['employee_id', 'year', 'month', 'actual_kilometers'],
        'numeric_columns': [
            'year', 'month', 'actual_kilometers', 'fuel_efficiency',
            'on_time_delivery_rate', 'customer_rating', 'safety_score'
        ],
        'optional_columns': ['fuel_efficiency', 'on_time_delivery_rate', 'customer_rating', 'safety_score']
    }
}
