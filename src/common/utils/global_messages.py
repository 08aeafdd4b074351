class GlobalMessages:
    # Auth Messages
    INVALID_CREDENTIALS = "Could not validate credentials. Please log in again."

    # Lookup Messages
    CHARGE_NOT_FOUND = "Charge not found."
    ENCOUNTER_CHARGE_NOT_FOUND = "Encounter charge not found."
    PATIENT_NOT_FOUND = "Patient not found."
    ENCOUNTER_NOT_FOUND = "Encounter not found."
    HMO_NOT_FOUND = "HMO not found."
    RECEIPT_NOT_FOUND = "Receipt not found."
    CLAIM_NOT_FOUND = "Claim not found."
    NO_CHARGES_FOUND = "No charges found."
    INVOICE_NOT_FOUND = "Invoice not found."

    # Ledger Messages
    CHARGE_INACTIVE = "Charge is no longer active."
    CHARGE_PROCESSED_UPDATE = "Cannot update a processed charge."
    CHARGE_PROCESSED_DELETE = "Cannot delete a processed charge."
    CHARGE_PROCESSED_CANCEL = "Cannot cancel a processed charge."
    CHARGE_REMOVED = "Charge removed."
    CHARGE_DEACTIVATED = "Charge deactivated."
    ENCOUNTER_PATIENT_MISMATCH = "Encounter does not belong to this patient."

    # Payment Messages
    CHARGE_ALREADY_SETTLED = "One or more charges have already been settled."
    CHARGE_WRONG_ENCOUNTER = "One or more charges do not belong to this encounter."
    INSUFFICIENT_DEPOSIT = "Insufficient deposit balance."
    INSUFFICIENT_RETAINERSHIP = "Insufficient HMO retainership balance."
    NOT_RETAINERSHIP_PATIENT = "Patient is not a Retainership patient."
    RECEIPT_NUMBER_EXHAUSTED = "Could not allocate a unique receipt number."
    RECEIPT_ALREADY_REVERSED = "Receipt has already been reversed."
    AMOUNT_NOT_POSITIVE = "Amount must be greater than zero."

    # Claim Messages
    CLAIM_TIER_NOT_INSURED = "Claims can only be generated for Retainership, NHIA or KSCHMA patients."
    CLAIM_NO_HMO = "Patient does not have an HMO assigned."
    CLAIM_EXISTS = "Claim already exists for this encounter."
    CLAIM_REJECTION_REASON_REQUIRED = "A rejection reason is required to reject a claim."
    CLAIM_TRANSITION_NOT_ALLOWED = "Claim cannot move from '{current}' to '{target}'."

    # Invoice Messages
    INVOICE_ALREADY_PAID = "Invoice has already been paid."
    INVOICE_NOT_PENDING = "Only pending invoices can be paid."
    INVOICE_ALREADY_REVERSED = "Invoice has already been reversed."
    INVOICE_METHOD_NOT_ALLOWED = "Invoices cannot be settled from a retainership pool."
    INVOICE_IDS_REQUIRED = "No invoices selected."

    # HMO Messages
    HMO_NAME_TAKEN = "An HMO with this name already exists."
