"""
toolvalet Integrations - Built-in tools for external providers

- crm: contacts, deals, deal stakeholders (custom-crm)
- calendar: list and create Google Calendar events (google-calendar)
- documents: create Google Docs (google-docs)
- slack: messages, channels, history and search (slack)
- utility: weather, date parsing, deal summary composition (no provider)
"""
