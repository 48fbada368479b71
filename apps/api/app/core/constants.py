"""Application constants."""

# Sentinel used by next_section_id and conditional rule targets to mean
# "finish the form" instead of naming a section.
END_OF_FORM = "end"

# Validation messages returned to respondents
REQUIRED_MESSAGE = "This field is required"
MIN_LENGTH_MESSAGE = "Minimum length is {limit} characters"
MAX_LENGTH_MESSAGE = "Maximum length is {limit} characters"
