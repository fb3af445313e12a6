"""SMS bodies shared across tests."""

T0 = 1_700_000_000_000

HDFC_UPI_DEBIT = ("Rs.500.00 debited from A/c XX1234 on 15-12-2023 14:30:15 at ZOMATO. "
                  "UPI Ref: 123456789. Avl Bal: Rs.25,000.00")
IMPS_DEBIT = "Rs.5000.00 debited from A/c XX1234 to ACME TRADERS via IMPS. Ref 111111111"
IMPS_CREDIT = "Rs.5000.00 credited to A/c XX5678 from ACME TRADERS via IMPS. Ref 222222222"
ICICI_CARD_SPEND = ("INR 1,250.00 spent on your ICICI Bank Credit Card XX4321 at AMAZON on 15-Aug-24. "
                    "Avl Limit: INR 48,750.00")
CARD_BILL_PAYMENT = ("Rs.5,000.00 debited from A/c XX1234 for payment of Rs.5,000.00 towards "
                     "credit card XX9876. Ref 556677889")
HDFC_CARD_SPEND = ("Rs.1,500.00 spent on HDFC Bank Credit Card xx4321 at AMAZON on 2024-08-15. "
                   "Avl credit limit Rs.48,500.00")
LOAN_PROMO = "Congratulations! You are eligible for a pre-approved loan up to Rs.5,00,000. Apply now!"
OTP = "Your OTP for transaction of Rs.2,000 is 123456. Do not share."
SELF_TRANSFER = ("Rs.10,000.00 debited from your A/c XX1234 and credited to your A/c XX5678. "
                 "Self transfer via NEFT. Ref N123456789")
UNKNOWN_BANK_UPI = "Rs.200 debited from A/c XX1234 to Merchant via UPI. Ref 123456789"
EMANDATE = "E-Mandate! Rs.649.00 will be deducted on 05/09/2024 for NETFLIX mandate. UMN HDFC1234567890ABCD"
FUTURE_DEBIT = "Your A/c XX1234 will be debited on 10/09/2024 for Rs.299.00 towards SPOTIFY."
