"""Pure domain model of the inventory lifecycle and cost-allocation engine."""
