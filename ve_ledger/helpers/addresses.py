# Named addresses
ALICE = "tz1alice"
BOB = "tz1bob"
JOHN = "tz1john"
MIKE = "tz1mike"

# Administrative roles
ADMIN = "tz1admin"
GOVERNOR = "tz1governor"

# An address with no contract behind it
NOT_A_CONTRACT = "tz1nobody"
