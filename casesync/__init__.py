"""Mirror of the Advbox case-management API for the office intranet."""
