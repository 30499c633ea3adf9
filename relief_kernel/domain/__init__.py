"""Pure domain layer: values, status rules, lifecycle maps and DTOs. No I/O."""
